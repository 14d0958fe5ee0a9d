"""QUIC variable-length integers, CRYPTO frame reassembly and byte locators."""