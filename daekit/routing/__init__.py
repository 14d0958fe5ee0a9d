"""Routing rules and their expansion into per-function parser calls."""