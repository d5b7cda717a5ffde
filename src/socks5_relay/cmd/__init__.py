"""Command line interface modules.

This package provides the command-line tools for:
- Loading the server configuration
- Setting up logging
- Starting the proxy server
- Error reporting on startup failures
"""
