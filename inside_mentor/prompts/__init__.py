from .json_loader import clear_prompt_cache, load_templates, template_fields

__all__ = ["clear_prompt_cache", "load_templates", "template_fields"]
