"""
HostDiag - Host Network Diagnostics

A diagnostic data-collection toolkit that inventories a host's active
sockets with their owning processes and probes network reachability
with ping and traceroute.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
