"""Byte streams, stream reassembly, Ethernet/ARP/IPv4 formats, network interfaces and IP routing."""

__version__ = "0.1.0"