"""Streaming media formats: HLS, MPEG-TS, CMCD, pcap, SIP, JPEG XS and Cinegy Air."""

__version__ = "0.1.0"