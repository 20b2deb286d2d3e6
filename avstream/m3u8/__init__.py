"""Reading and writing HLS (m3u8) playlists."""