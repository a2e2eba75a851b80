from necromancer.privacy.guard import DeidentificationGuard
from necromancer.privacy.persistence import MappingStore, generate_run_id
from necromancer.privacy.sampler import Sampler
from necromancer.privacy.sanitizer import Sanitizer, build_raw_payload
from necromancer.privacy.tokenizer import Tokenizer

__all__ = [
    "DeidentificationGuard",
    "MappingStore",
    "Sampler",
    "Sanitizer",
    "Tokenizer",
    "build_raw_payload",
    "generate_run_id",
]
