"""Agent Chain Wallet.

Gives an autonomous agent custody of one blockchain account: encrypted key
storage, a signing identity, read access to chain state, confirmed transaction
execution, and a small set of non-throwing tools an external planner can call.
"""

__version__ = "0.1.0"
