"""Default 80-project leaderboard used to seed empty dates."""

from __future__ import annotations

LOGO_BASE_URL = "https://assets.coingecko.com/coins/images/"

# (name, score, logo path) in rank order
DEFAULT_PROJECTS: tuple[tuple[str, int, str], ...] = (
    ("Ethereum", 9500, "279/small/ethereum.png"),
    ("Bitcoin", 9200, "1/small/bitcoin.png"),
    ("Uniswap", 8800, "12504/small/uniswap-uni.png"),
    ("Aave", 8500, "12645/small/aave.png"),
    ("Chainlink", 8200, "877/small/chainlink-new-logo.png"),
    ("Polygon", 8000, "4713/small/polygon.png"),
    ("Arbitrum", 7800, "16547/small/arbitrum.png"),
    ("Optimism", 7600, "25244/small/Optimism.png"),
    ("Base", 7400, "27508/small/base.png"),
    ("Solana", 7200, "4128/small/solana.png"),
    ("MakerDAO", 7000, "1364/small/maker.png"),
    ("Compound", 6800, "10775/small/compound.png"),
    ("Curve", 6600, "12124/small/curve.png"),
    ("Lido", 6400, "13573/small/lido.png"),
    ("Rocket Pool", 6200, "20764/small/rocket_pool.png"),
    ("Frax", 6000, "13422/small/frax.png"),
    ("Synthetix", 5800, "3406/small/synthetix.png"),
    ("1inch", 5600, "13469/small/1inch.png"),
    ("Yearn Finance", 5400, "11849/small/yfi-192x192.png"),
    ("Balancer", 5200, "11683/small/balancer.png"),
    ("SushiSwap", 5000, "12271/small/sushiswap.png"),
    ("PancakeSwap", 4800, "12632/small/pancakeswap.png"),
    ("Avalanche", 4600, "12559/small/avalanche.png"),
    ("Cosmos", 4400, "1481/small/cosmos.png"),
    ("Polkadot", 4200, "12171/small/polkadot.png"),
    ("Cardano", 4000, "975/small/cardano.png"),
    ("Near Protocol", 3800, "10365/small/near.png"),
    ("Aptos", 3600, "26455/small/aptos.png"),
    ("Sui", 3400, "26375/small/sui.png"),
    ("Celestia", 3200, "31967/small/celestia.png"),
    ("Starknet", 3000, "26433/small/starknet.png"),
    ("zkSync", 2800, "25725/small/zksync.png"),
    ("Scroll", 2600, "31099/small/scroll.png"),
    ("Linea", 2400, "31098/small/linea.png"),
    ("Mantle", 2200, "30980/small/mantle.png"),
    ("Blast", 2000, "34115/small/blast.png"),
    ("Metis", 1800, "15595/small/metis.png"),
    ("Gnosis Chain", 1600, "11062/small/gnosis.png"),
    ("Celo", 1400, "11090/small/celo.png"),
    ("Moonbeam", 1200, "22459/small/moonbeam.png"),
    ("Moonriver", 1100, "17984/small/moonriver.png"),
    ("Fantom", 1000, "4001/small/fantom.png"),
    ("Harmony", 950, "4344/small/harmony.png"),
    ("Cronos", 900, "7310/small/cronos.png"),
    ("BSC", 850, "825/small/bnb.png"),
    ("Immutable X", 800, "17233/small/immutable-x.png"),
    ("Loopring", 750, "9138/small/loopring.png"),
    ("Polygon zkEVM", 700, "27423/small/polygon-zkevm.png"),
    ("Manta Network", 650, "34212/small/manta.png"),
    ("Mode", 600, "34519/small/mode.png"),
    ("EigenLayer", 550, "32365/small/eigenlayer.png"),
    ("Renzo", 500, "34056/small/renzo.png"),
    ("Puffer Finance", 480, "34057/small/puffer.png"),
    ("Kelp DAO", 460, "34058/small/kelp.png"),
    ("Ether.fi", 440, "33019/small/etherfi.png"),
    ("Swell", 420, "33914/small/swell.png"),
    ("Morpho", 400, "28420/small/morpho.png"),
    ("Spark Protocol", 380, "32033/small/spark.png"),
    ("GMX", 360, "18323/small/gmx.png"),
    ("dYdX", 340, "17500/small/dydx.png"),
    ("Perpetual Protocol", 320, "12331/small/perpetual.png"),
    ("Gains Network", 300, "19737/small/gains.png"),
    ("Radiant Capital", 280, "26536/small/radiant.png"),
    ("Venus Protocol", 260, "12677/small/venus.png"),
    ("JustLend", 240, "13120/small/justlend.png"),
    ("Benqi", 220, "23657/small/benqi.png"),
    ("Trader Joe", 200, "17527/small/traderjoe.png"),
    ("Raydium", 180, "13928/small/raydium.png"),
    ("Orca", 160, "20603/small/orca.png"),
    ("Jupiter", 140, "34188/small/jupiter.png"),
    ("Meteora", 120, "33915/small/meteora.png"),
    ("Drift Protocol", 100, "33916/small/drift.png"),
    ("MarginFi", 90, "33917/small/marginfi.png"),
    ("Kamino Finance", 80, "33918/small/kamino.png"),
    ("Tensor", 70, "33919/small/tensor.png"),
    ("Magic Eden", 60, "22331/small/magic-eden.png"),
    ("OpenSea", 50, "26349/small/opensea.png"),
    ("Blur", 40, "28423/small/blur.png"),
    ("LooksRare", 30, "22188/small/looksrare.png"),
    ("Foundation", 20, "26350/small/foundation.png"),
)
