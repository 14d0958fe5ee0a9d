"""Domain sniffing from TLS and HTTP payloads."""