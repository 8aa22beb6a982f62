"""Reference tables for heuristic transaction matching.

Everything here is read-only and lower-cased; the detectors compare
recipients with ``address.lower()`` against these sets.
"""

from models import MainnetChain


# ── Chains ────────────────────────────────────────────────────────────────────

MAINNET_CHAINS: frozenset[str] = frozenset(c.value for c in MainnetChain)

CHAIN_DISPLAY_NAMES: dict[str, str] = {
    "avalanche_c": "Avalanche",
    "bnb": "BSC",
    "zkevm": "Polygon zkEVM",
}


# ── Known Contracts ───────────────────────────────────────────────────────────
# Category -> protocol name -> contract addresses.

DEFI = "defi"
NFT_MARKETPLACE = "nft_marketplace"
BRIDGE = "bridge"
ENS = "ens"
STABLECOIN = "stablecoin"

KNOWN_CONTRACTS: dict[str, dict[str, frozenset[str]]] = {
    DEFI: {
        "Uniswap": frozenset({
            "0x5c69bee701ef814a2b6a3edd4b1652cb9cc5aa6f",  # V2 Factory Ethereum
            "0x1f98431c8ad98523631ae4a59f267346ea31f984",  # V3 Factory Ethereum
            "0x7a250d5630b4cf539739df2c5dacb4c659f2488d",  # V2 Router Ethereum
            "0xe592427a0aece92de3edee1f18e0157c05861564",  # V3 Router Ethereum
            "0x3fc91a3afd70395cd496c647d5a6cc9d4b2b7fad",  # Universal Router
            "0x33128a8fc17869897dce68ed026d694621f6fdfd",  # V3 Factory Base
            "0x2626664c2603336e57b271c5c0b26f421741e481",  # V3 Router Base
            "0x27a16dc786820b16e5c9028b75b99f6f604b5d26",  # Router Base
        }),
        "Aave": frozenset({
            "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9",  # V2 Ethereum
            "0x87870bca3f3fd6335c3f4ce8392d69350b4fa4e2",  # V3 Ethereum
            "0xa238dd80c259a72e81d7e4664a9801593f98d1c5",  # V3 Base
        }),
        "Compound": frozenset({
            "0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b",  # Comptroller
            "0xa17581a9e3356d9a858b789d68b4d866e593ae94",  # V3 WETH
        }),
        "Curve": frozenset({
            "0x79a8c46dea5ada233abaffd40f3a0a2b1e5a4f27",  # Registry
            "0x90e00ace148ca3b23ac1bc8c240c2a7dd9c2d7f5",  # Factory
        }),
        "Lido": frozenset({
            "0xae7ab96520de3a18e5e111b5eaab095312d7fe84",  # stETH
            "0x7f39c581f595b53c5cb19bd0b3f8da6c935e2ca0",  # wstETH
        }),
        "SushiSwap": frozenset({
            "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f",  # Router Ethereum
        }),
        "Balancer": frozenset({
            "0xba12222222228d8ba445958a75a0704d566bf2c8",  # V2 Vault
        }),
        "1inch": frozenset({
            "0x1111111254fb6c44bac0bed2854e76f90643097d",  # Aggregation Router V4
            "0x1111111254eeb25477b68fb85ed929f73a960582",  # Aggregation Router V5
        }),
        "MakerDAO": frozenset({
            "0x5ef30b9986345249bc32d8928b7ee64de9435e39",  # CDP Manager
            "0x373238337bfe1146fb49989fc222523f83081ddb",  # DSR Manager
        }),
        "Convex": frozenset({
            "0xf403c135812408bfbe8713b5a23a04b3d48aae31",  # Booster
        }),
    },
    NFT_MARKETPLACE: {
        "OpenSea": frozenset({
            "0x7be8076f4ea4a4ad08075c2508e481d6c946d12b",  # Wyvern v1
            "0x7f268357a8c2552623316e2562d90e642bb538e5",  # Wyvern v2
            "0x00000000000001ad428e4906ae43d8f9852d0dd6",  # Seaport
            "0x495f947276749ce646f68ac8c248420045cb7b5e",  # Shared Storefront
        }),
        "Zora": frozenset({
            "0xabefbc9fd2f806065b4f3c237d4b59d9a97bcac7",
        }),
        "LooksRare": frozenset({
            "0x59728544b08ab483533076417fbbb2fd0b17ce3a",
        }),
        "X2Y2": frozenset({
            "0x74312363e45dcaba76c59ec49a7aa8a65a67eed3",
        }),
        "Foundation": frozenset({
            "0x0000000000e655fae4d56241588680f86e3b2377",
        }),
        "SuperRare": frozenset({
            "0x2953399124f0cbb46d2cbacd8a89cf0599974963",
        }),
        "KnownOrigin": frozenset({
            "0xc2edad668740f1aa35e4d8f227fb8e17dca888cd",
        }),
        "AsyncArt": frozenset({
            "0x60e4d786628fea6478f785a6d7e704777c86a7c6",
        }),
        "Rarible": frozenset({
            "0xa5409ec958c83c3f309868babaca7c86dcb077c1",
        }),
    },
    BRIDGE: {
        "LayerZero Bridge": frozenset({
            "0x5634c4a5fed09819e3c46d86a965dd9447d86e47",
            "0x1a44076050125825900e736c501f859c50fe728c",
        }),
        "Arbitrum Bridge": frozenset({
            "0x72ce9c846789fdb6fc1f34ac4ad25dd9ef7031ef",
            "0x8315177ab297ba92a06054ce80a67ed4dbd7ed3a",
        }),
        "Optimism Bridge": frozenset({
            "0x25ace71c97b33cc4729cf772ae268934f7ab5fa1",
            "0x99c9fc46f92e8a1c0dec1b1747d010903e884be1",
        }),
        "Base Bridge": frozenset({
            "0x49048044d57e1c92a77f79988d21fa8faf74e97e",
            "0x3154cf16ccdb4c6d922629664174b904d80f2c35",
        }),
        "Polygon Bridge": frozenset({
            "0x40ec5b33f54e0e8a33a975908c5ba1c14e5bbbdf",
            "0xa0c68c638235ee32657e8f720a23cec1bfc77c77",
        }),
    },
    ENS: {
        "ENS": frozenset({
            "0x57f1887a8bf19b14fc0df6fd9b2acc9af147ea85",  # Base Registrar
            "0x314159265dd8dbb310642f98f50c066173c1259b",  # Registry
        }),
    },
    STABLECOIN: {
        "Stablecoins": frozenset({
            "0xa0b86a33e6ee6481c1e7c4c5c4ecb0a4c9e22ad0",
            "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",  # USDC Base
            "0xa0b2ee912caf7921eaabc866c6ef1520c6a6008c",
        }),
    },
}

DEFI_PROTOCOLS: dict[str, frozenset[str]] = KNOWN_CONTRACTS[DEFI]
ENS_CONTRACTS: frozenset[str] = KNOWN_CONTRACTS[ENS]["ENS"]
NFT_MARKETPLACES: frozenset[str] = frozenset().union(*KNOWN_CONTRACTS[NFT_MARKETPLACE].values())

MAINSTREAM_PROTOCOLS = ("uniswap", "aave", "compound")


# ── Call-data Heuristics ──────────────────────────────────────────────────────

NFT_SELECTORS: frozenset[str] = frozenset({
    "0xa22cb465",  # setApprovalForAll
    "0x23b872dd",  # transferFrom
    "0x42842e0e",  # safeTransferFrom(address,address,uint256)
    "0xb88d4fde",  # safeTransferFrom(address,address,uint256,bytes)
    "0xf242432a",  # safeTransferFrom (ERC1155)
    "0x2eb2c2d6",  # safeBatchTransferFrom (ERC1155)
    "0x1fad948c",  # approve (ERC721)
    "0xa9059cbb",  # transfer; also ERC-20, counted on purpose
    "0x40c10f19",  # mint
    "0x6352211e",  # ownerOf
})

NFT_CALLDATA_PATTERNS = ("tokenuri", "metadata", "tokenid", "721", "1155")

GOVERNANCE_KEYWORDS = ("vote", "govern", "snapshot", "dao")

BRIDGE_KEYWORD = "bridge"

EMPTY_CALLDATA = "0x"
