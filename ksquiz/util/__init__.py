from .randomness import make_rng, seed_from_env

__all__ = ["make_rng", "seed_from_env"]
