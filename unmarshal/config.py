"""
unmarshal/config.py
===================
Configuration d'une passe de décodage.
"""

from dataclasses import dataclass, fields
from typing import Optional


@dataclass
class DecodeConfig:
    separator: str = "."                # Séparateur des segments de nom
    tag_name: str = "gguf"              # Clé de metadata des champs de dataclass
    strict_indices: bool = False        # Indices de séquence = 0..n-1 exactement
    max_workers: Optional[int] = None   # >1 : feuilles résolues dans un pool de threads
    verbose: bool = False

    @staticmethod
    def from_dict(values: dict) -> 'DecodeConfig':
        """Construit une config ; clés inconnues ignorées, valeurs invalides → défaut."""
        defaults = DecodeConfig()
        kwargs = {}
        for f in fields(DecodeConfig):
            if f.name not in values:
                continue
            val = values[f.name]
            default = getattr(defaults, f.name)
            try:
                if f.name == "max_workers":
                    kwargs[f.name] = None if val is None else int(val)
                elif isinstance(default, bool):
                    kwargs[f.name] = val if isinstance(val, bool) else str(val).lower() in ("1", "true", "yes")
                else:
                    kwargs[f.name] = type(default)(val)
            except (TypeError, ValueError):
                kwargs[f.name] = default
        return DecodeConfig(**kwargs)
