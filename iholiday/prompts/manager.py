"""
Prompt Manager - Loads JSON prompt configurations for the trip planner
Prompts live in configs/ so wording and model parameters change without code edits
"""

import json
import logging
from pathlib import Path
import re
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("model_name", "prompt_template")


class PromptManager:
    """
    Loads and formats prompt configurations from JSON files

    Each config carries a model name, a str.format template and optional
    generation parameters and system instruction.
    """

    def __init__(self, configs_dir: Optional[Path] = None):
        """
        Args:
            configs_dir: Directory holding *.json configs
                         Defaults to iholiday/prompts/configs/
        """
        self.configs_dir = Path(configs_dir) if configs_dir else Path(__file__).parent / "configs"
        if not self.configs_dir.exists():
            raise FileNotFoundError(f"Prompts config directory not found: {self.configs_dir}")
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load_config(self, config_name: str) -> Dict[str, Any]:
        """
        Load a prompt configuration

        Args:
            config_name: File name without the .json extension

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the JSON is invalid or a required field is missing
        """
        if config_name in self._cache:
            return self._cache[config_name]

        config_path = self.configs_dir / f"{config_name}.json"
        if not config_path.exists():
            raise FileNotFoundError(f"Prompt config not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {str(e)}")

        for field in REQUIRED_FIELDS:
            if field not in config:
                raise ValueError(f"Missing required field '{field}' in {config_name}.json")

        self._cache[config_name] = config
        return config

    def format_prompt(self, config_name: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inject variables into the config's template

        None values render as "N/A".

        Returns:
            {prompt, system_instruction, model_name, parameters, metadata}

        Raises:
            ValueError: If the template references a variable not provided
        """
        config = self.load_config(config_name)
        safe_variables = {key: "N/A" if value is None else str(value) for key, value in variables.items()}

        try:
            prompt = config["prompt_template"].format(**safe_variables)
        except KeyError as e:
            raise ValueError(f"Missing required variable {e} for prompt '{config_name}'")

        return {
            "prompt": prompt,
            "system_instruction": config.get("system_instruction", ""),
            "model_name": config["model_name"],
            "parameters": config.get("parameters", {}),
            "metadata": config.get("metadata", {}),
        }

    def list_available_prompts(self) -> List[str]:
        return sorted(f.stem for f in self.configs_dir.glob("*.json"))

    def validate_variables(self, config_name: str, variables: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """Check that every {name} placeholder in the template has a value"""
        template = self.load_config(config_name)["prompt_template"]
        required = set(re.findall(r"(?<!\{)\{(\w+)\}(?!\})", template))
        missing = sorted(required - set(variables))
        return not missing, missing

    def reload(self) -> None:
        self._cache.clear()


_default_manager: Optional[PromptManager] = None


def get_prompt_manager() -> PromptManager:
    global _default_manager
    if _default_manager is None:
        _default_manager = PromptManager()
    return _default_manager
