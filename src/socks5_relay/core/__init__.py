"""Core proxy server implementation.

This package contains the core components of the SOCKS proxy server:
- Protocol handlers (SOCKS5 negotiation, authentication, requests)
- TCP and UDP relays
- Threaded server implementation
- Statistics tracking
- Configuration and logging setup
- Exception handling

The core package provides all the fundamental functionality needed
to run a SOCKS proxy server, while keeping the implementation details
separate from the command-line interface.
"""
