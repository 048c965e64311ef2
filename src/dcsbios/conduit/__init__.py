"""
The conduit package opens the UDP sockets used to talk to DCS-BIOS: a multicast receiver for the
export stream and a sender for commands.
"""
