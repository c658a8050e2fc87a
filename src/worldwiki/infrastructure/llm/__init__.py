from .base import GenerationService
from .openai_client import OpenAIGenerationService
