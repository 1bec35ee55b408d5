"""State layer.

The debouncer is the only component allowed to write the persisted sync
flag.  ``policy`` holds the pure decision table it follows.
"""
