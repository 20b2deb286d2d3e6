"""Decoding and encoding MPEG transport stream packets and the PES packets they carry."""