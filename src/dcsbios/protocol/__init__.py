"""
The DCS-BIOS wire protocol and the background loops that pump it.
"""
