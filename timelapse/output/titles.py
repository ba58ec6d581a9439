"""Whimsical default titles for new recordings."""

import random

ADJECTIVES = [
    "Cosmic", "Quantum", "Temporal", "Dimensional", "Ethereal", "Mystical",
    "Astral", "Celestial", "Interstellar", "Transcendental", "Bizarre",
    "Whimsical", "Eccentric", "Surreal", "Psychedelic", "Ludicrous", "Absurd",
    "Outlandish", "Fantastical", "Uncanny", "Galactic", "Stellar", "Lunar",
    "Solar", "Mysterious", "Enigmatic", "Cryptic", "Arcane",
]

NOUNS = [
    "Wormhole", "Portal", "Rift", "Gateway", "Vortex", "Tunnel", "Bridge",
    "Passage", "Corridor", "Pathway", "Time Machine", "Teleporter",
    "Dimensional Door", "Space Elevator", "Time Capsule", "Cosmic Toaster",
    "Quantum Coffee Maker", "Interdimensional Fridge", "Astral Microwave",
    "Galactic Blender", "Black Hole", "Nebula", "Supernova", "Asteroid",
    "Comet", "Parallel Universe", "Alternate Reality", "Time Loop",
    "Space-Time Continuum", "Cosmic String",
]

VERBS = [
    "Journey", "Adventure", "Expedition", "Voyage", "Quest", "Odyssey",
    "Pilgrimage", "Wander", "Traverse", "Explore", "Bounce", "Wiggle",
    "Squiggle", "Flutter", "Dance", "Teleport", "Time Travel",
    "Dimension Hop", "Space Surf", "Cosmic Skate", "Navigate", "Pilot",
    "Steer", "Guide", "Chart", "Discover", "Uncover", "Reveal", "Unveil",
    "Expose",
]

TEMPLATES = [
    "{adj} {noun} {verb}",
    "{verb} Through the {adj} {noun}",
    "{adj} {verb} in the {noun}",
    "{noun} {verb}: {article} {adj} Tale",
    "{adj} {noun} {verb}ing",
    "The {adj} {noun} That {verb}ed Too Much",
    "{verb}ing with the {adj} {noun}",
    "My {adj} {noun} {verb}ing Adventure",
    "The {noun} That {verb}ed: {article} {adj} Story",
    "{adj} {noun} {verb}s Again",
    "When the {noun} {verb}ed: {article} {adj} Experience",
    "{verb}ing Through the {adj} {noun}",
    "The {adj} {noun} {verb}ing Chronicles",
    "{noun} {verb}s: The {adj} Edition",
    "{article} {adj} {noun} {verb}ing Tale",
]


def article_for(word: str) -> str:
    """'an' before a vowel, 'a' otherwise."""
    return "an" if word[:1].lower() in "aeiou" else "a"


def generate_title(rng: random.Random = None) -> str:
    rng = rng or random
    adj = rng.choice(ADJECTIVES)
    title = rng.choice(TEMPLATES).format(
        adj=adj,
        noun=rng.choice(NOUNS),
        verb=rng.choice(VERBS),
        article=article_for(adj),
    )
    return title[:1].upper() + title[1:]
