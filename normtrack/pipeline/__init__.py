"""normtrack – Pipeline package.

Wires fetching, parsing, merging and persistence into a single update
run.
"""
