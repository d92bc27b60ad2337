"""
Core types for tokenization.
"""

type Token = int
type TokenBytes = bytes
type Rank = int
type SpecialTokens = dict[str, Token]
