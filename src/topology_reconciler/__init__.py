"""
topology_reconciler

This package reconciles a datacenter cabling topology file against the SLS
hardware inventory and allocates IPv4 space for newly added hardware.

We keep modules small and well separated:
core contains shared data structures, identifiers and errors
inventory contains the inventory state, diff, SLS codecs and source plugins
ipam contains the address and subnet allocator
topology contains the topology file model and the hardware builder
engine contains the reconciliation pass and its report
cli contains the runner and the command line entry point
"""
