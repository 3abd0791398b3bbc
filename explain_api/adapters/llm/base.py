from abc import ABC, abstractmethod
from typing import Any


class AbstractLLMClient(ABC):
	"""Interface for chat-completion providers used by the tutor endpoints."""

	provider: str = "unknown"

	@abstractmethod
	async def generate_text(
		self,
		system_prompt: str,
		user_message: str,
		**kwargs: Any,
	) -> str:
		"""Generate a free-form reply.

		Args:
			system_prompt: Persona/instructions for the model.
			user_message: Sanitized learner message.
			**kwargs: Provider-specific options (e.g., temperature, max_tokens).

		Returns:
			str: Model reply text.

		Raises:
			RuntimeError: If the provider call fails or returns nothing.
		"""
		...

	@abstractmethod
	async def generate_json(
		self,
		prompt: str,
		**kwargs: Any,
	) -> Any:
		"""Generate a JSON document from the model.

		Args:
			prompt: Instructions describing the JSON shape to return.
			**kwargs: Provider-specific options.

		Returns:
			Any: Parsed JSON value (object or array).

		Raises:
			RuntimeError: If the provider call fails or the response is not JSON.
		"""
		...
