"""Key custody and transaction execution for a single agent account.

The vault encrypts private keys at rest, the signer derives the account,
the chain client reads state over RPC, and the executor signs, submits and
waits for confirmation. ``AgentWallet`` binds one signer to one client.
"""
