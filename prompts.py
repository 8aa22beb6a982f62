from models import CharacterClass, CharacterRank

SYSTEM_PROMPT = """You are the narrator of an on-chain role-playing game. You receive the \
character sheet of a blockchain wallet and write its backstory.

Your writing should be:
- Second person ("You are...")
- Grounded in the numbers on the sheet
- Two short paragraphs, no headings, no lists
- Playful but never mocking"""


NARRATIVE_PROMPT = """Write the backstory for this wallet character.

CHARACTER SHEET:
{character_data}

The first paragraph introduces the class ({character_class}) and what the wallet's \
activity says about it. The second paragraph reflects the rank ({rank}): mention how \
long the wallet has been active, how many transactions it made and how many different \
contracts it touched.

Use actual numbers from the sheet. Never invent protocols, tokens or events."""


CLASS_NARRATIVES: dict[CharacterClass, str] = {
    CharacterClass.NFT_COLLECTOR: (
        "You are a collector with a singular eye, hunting for rare digital art across "
        "the chain. You have {nft_count} NFT moves to your name, and your taste has left "
        "deep footprints in the virtual galleries."
    ),
    CharacterClass.DEFI_ALCHEMIST: (
        "You have mastered the secrets of DeFi, bending liquidity and yield to your will. "
        "{defi_count} different protocols answer to you, and decentralized finance is "
        "your natural element."
    ),
    CharacterClass.AIRDROP_HUNTER: (
        "You are a sharp-eyed hunter of on-chain opportunity, always first to spot the "
        "next airdrop. With greed at {greed}/5 you roam from protocol to protocol in "
        "search of the next treasure."
    ),
    CharacterClass.PROTOCOL_DIPLOMAT: (
        "You take part in on-chain governance and lend your voice to the growth of the "
        "decentralized world. Your social score of {social}/5 shows your pull within "
        "the community."
    ),
    CharacterClass.CHAIN_WANDERER: (
        "You are an explorer of the multi-chain world, with footprints on {chain_count} "
        "different blockchains. Your spirit of adventure ({adventure}/5) keeps pushing "
        "you toward new frontiers."
    ),
    CharacterClass.IDENTITY_SEEKER: (
        "You care about the names that represent you on-chain, such as ENS domains. "
        "Your aesthetic sense ({aesthetic}/5) shows in how carefully you shape your "
        "personal brand."
    ),
    CharacterClass.INTERCHAIN_NOMAD: (
        "You move easily between blockchains, a true multi-chain player. You have left "
        "traces on {chain_count} chains and are a regular on the bridges between them."
    ),
    CharacterClass.NEWCOMER: (
        "You have only recently stepped into the on-chain world and are still learning "
        "what it can do. Experience is thin for now, but every transaction is a step "
        "forward."
    ),
}


RANK_NARRATIVES: dict[CharacterRank, str] = {
    CharacterRank.S: "You are a legend of the chain, seasoned and skilled in every art.",
    CharacterRank.A: "You are a master of the on-chain world with a deep grasp of its protocols.",
    CharacterRank.B: "You are an experienced player who has picked up many skills.",
    CharacterRank.C: "You are growing steadily and finding your own path on-chain.",
    CharacterRank.D: "You are new to the on-chain world, with plenty left to explore.",
}


CLOSING_NARRATIVE = (
    "{rank_text} You have been active on-chain for {active_years} years, completed "
    "{total_transactions} transactions and interacted with {unique_contracts} "
    "different contracts."
)
