"""Prompt-as-Config for the trip planner"""

from iholiday.prompts.manager import PromptManager, get_prompt_manager

__all__ = ["PromptManager", "get_prompt_manager"]
