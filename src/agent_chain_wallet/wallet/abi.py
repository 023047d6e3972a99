"""ABI fragments for the contracts agents touch."""

ERC20_ABI: list[dict] = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

# Tycoon game contract, only the entry points agents call.
TYCOON_ABI: list[dict] = [
    {
        "name": "registerPlayer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "username", "type": "string"}],
        "outputs": [],
    },
    {
        "name": "createGame",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "creatorUsername", "type": "string"},
            {"name": "gameType", "type": "string"},
            {"name": "playerSymbol", "type": "string"},
            {"name": "numberOfPlayers", "type": "uint8"},
            {"name": "code", "type": "string"},
            {"name": "startingBalance", "type": "uint256"},
            {"name": "stakeAmount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "joinGame",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "gameId", "type": "uint256"},
            {"name": "playerUsername", "type": "string"},
            {"name": "playerSymbol", "type": "string"},
            {"name": "joinCode", "type": "string"},
        ],
        "outputs": [{"name": "", "type": "uint8"}],
    },
]

