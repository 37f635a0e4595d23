"""Configuration loader for evemind.

Loads settings from ~/.evemind/config.json and lets environment variables
override the values that change between deployments.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".evemind" / "config.json"
DEFAULT_DB_PATH = Path.home() / ".evemind" / "memory.db"
DEFAULT_MODEL = "llama-3.1-70b-versatile"

REASONING_DEPTHS = ("basic", "advanced", "expert")


@dataclass
class RankingWeights:
    """Weights used when ordering memories for the context block.

    Attributes:
        importance_weight: Multiplier on the importance difference.
        recency_weight: Multiplier on the last-access difference, in ms.
        max_results: How many memories make it into the context block.
    """

    importance_weight: float = 0.7
    recency_weight: float = 0.3
    max_results: int = 5

    def __post_init__(self) -> None:
        if self.max_results < 0:
            raise ValueError("max_results cannot be negative")


@dataclass
class LearningThresholds:
    """Confidence thresholds for accepting a learned insight.

    Attributes:
        high_confidence: Above this an insight needs no corroboration.
        medium_confidence: Above this one supporting memory is enough.
        low_confidence_quorum: Supporting memories needed below medium.
    """

    high_confidence: float = 0.8
    medium_confidence: float = 0.5
    low_confidence_quorum: int = 2

    def __post_init__(self) -> None:
        if not 0.0 <= self.medium_confidence < self.high_confidence <= 1.0:
            raise ValueError(
                "thresholds must satisfy 0 <= medium_confidence < high_confidence <= 1"
            )
        if self.low_confidence_quorum < 1:
            raise ValueError("low_confidence_quorum must be at least 1")


@dataclass
class EVEProfile:
    """Persona details rendered into the system prompt."""

    name: str = "EVE"
    company_name: str = "a company"
    capabilities: list[str] = field(
        default_factory=lambda: ["general assistance", "answering questions"]
    )
    working_hours: str = "standard business hours"


@dataclass
class EVEConfig:
    """Runtime configuration for one EVE.

    Attributes:
        agent_id: Identifier of the EVE that owns the memories.
        tenant_id: Identifier of the company the EVE belongs to.
        model: Chat model used for replies, extraction and analysis.
        temperature: Sampling temperature for replies.
        max_tokens: Reply length cap.
        context_window: Trailing history messages sent with each turn.
        use_streaming: Stream replies chunk by chunk.
        dev_mode: Answer with the offline responder on completion errors.
        learn_in_background: Run persisting and learning after the reply returns.
        reasoning_depth: Enables the analysis step (basic/advanced/expert).
        db_path: SQLite database holding the memories.
        profile: Persona shown in the system prompt.
        ranking: Relevance ranking weights.
        thresholds: Insight acceptance thresholds.
    """

    agent_id: str = "default"
    tenant_id: str = "default"
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 500
    context_window: int = 10
    use_streaming: bool = True
    dev_mode: bool = False
    learn_in_background: bool = True
    reasoning_depth: str | None = None
    db_path: Path = DEFAULT_DB_PATH
    profile: EVEProfile = field(default_factory=EVEProfile)
    ranking: RankingWeights = field(default_factory=RankingWeights)
    thresholds: LearningThresholds = field(default_factory=LearningThresholds)

    def __post_init__(self) -> None:
        if not self.agent_id or not self.tenant_id:
            raise ValueError("agent_id and tenant_id cannot be empty")
        if self.context_window < 0:
            raise ValueError("context_window cannot be negative")
        if self.reasoning_depth is not None and self.reasoning_depth not in REASONING_DEPTHS:
            raise ValueError(
                f"reasoning_depth must be one of {', '.join(REASONING_DEPTHS)}"
            )


def load_config(config_path: Path | None = None) -> EVEConfig:
    """Load EVEConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "agent": {
        "id": "eve-42",
        "tenant": "acme",
        "name": "Ada",
        "company": "Acme Corp",
        "capabilities": ["scheduling", "customer support"]
      },
      "chat": {
        "model": "llama-3.1-70b-versatile",
        "context_window": 10,
        "streaming": true
      },
      "memory": {
        "db_path": "~/.evemind/memory.db",
        "ranking": {"importance_weight": 0.7, "recency_weight": 0.3},
        "thresholds": {"high_confidence": 0.8, "medium_confidence": 0.5}
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        EVEConfig instance with loaded values.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return EVEConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return EVEConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return EVEConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return EVEConfig()

    return _parse_config(data)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


def _parse_config(data: dict[str, Any]) -> EVEConfig:
    """Parse config dictionary into EVEConfig."""
    agent = _section(data, "agent")
    chat = _section(data, "chat")
    memory = _section(data, "memory")

    defaults = EVEConfig()

    capabilities = agent.get("capabilities")
    if not isinstance(capabilities, list):
        capabilities = EVEProfile().capabilities

    profile = EVEProfile(
        name=str(agent.get("name", "EVE")),
        company_name=str(agent.get("company", "a company")),
        capabilities=[str(c) for c in capabilities],
        working_hours=str(agent.get("working_hours", "standard business hours")),
    )

    ranking = RankingWeights(**{
        k: v for k, v in _section(memory, "ranking").items()
        if k in ("importance_weight", "recency_weight", "max_results")
    })
    thresholds = LearningThresholds(**{
        k: v for k, v in _section(memory, "thresholds").items()
        if k in ("high_confidence", "medium_confidence", "low_confidence_quorum")
    })

    db_path = memory.get("db_path")

    return EVEConfig(
        agent_id=str(agent.get("id", defaults.agent_id)),
        tenant_id=str(agent.get("tenant", defaults.tenant_id)),
        model=str(chat.get("model", defaults.model)),
        temperature=float(chat.get("temperature", defaults.temperature)),
        max_tokens=int(chat.get("max_tokens", defaults.max_tokens)),
        context_window=int(chat.get("context_window", defaults.context_window)),
        use_streaming=bool(chat.get("streaming", defaults.use_streaming)),
        dev_mode=bool(chat.get("dev_mode", defaults.dev_mode)),
        learn_in_background=bool(
            chat.get("learn_in_background", defaults.learn_in_background)
        ),
        reasoning_depth=chat.get("reasoning_depth"),
        db_path=Path(db_path).expanduser() if db_path else defaults.db_path,
        profile=profile,
        ranking=ranking,
        thresholds=thresholds,
    )


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(config: EVEConfig) -> EVEConfig:
    """Override config values from environment variables.

    Recognized variables: EVE_AGENT_ID, EVE_TENANT_ID, GROQ_MODEL,
    EVE_STREAMING, EVE_DEV_MODE, EVE_CONTEXT_WINDOW, EVE_DB_PATH.

    Args:
        config: The config to update in place.

    Returns:
        The same config, for chaining.
    """
    config.agent_id = os.getenv("EVE_AGENT_ID", config.agent_id)
    config.tenant_id = os.getenv("EVE_TENANT_ID", config.tenant_id)
    config.model = os.getenv("GROQ_MODEL", config.model)
    config.use_streaming = _env_flag("EVE_STREAMING", config.use_streaming)
    config.dev_mode = _env_flag("EVE_DEV_MODE", config.dev_mode)

    window = os.getenv("EVE_CONTEXT_WINDOW")
    if window is not None:
        try:
            config.context_window = max(0, int(window))
        except ValueError:
            logger.warning("Ignoring invalid EVE_CONTEXT_WINDOW=%r", window)

    db_path = os.getenv("EVE_DB_PATH")
    if db_path:
        config.db_path = Path(db_path).expanduser()

    return config
