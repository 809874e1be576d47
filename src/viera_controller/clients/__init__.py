from viera_controller.clients.television import TelevisionClient, api_from_config

__all__ = ["TelevisionClient", "api_from_config"]
