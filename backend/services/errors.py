"""
Erreurs métier

Chaque erreur porte le code HTTP que la couche routes renvoie.
"""


class BalError(Exception):
    """Erreur métier de base"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PreconditionFailed(BalError):
    """Condition préalable non remplie (nécessite une action utilisateur)"""
    status_code = 412


class NotFound(BalError):
    status_code = 404


class BadInput(BalError):
    status_code = 400


class RemoteServiceError(BalError):
    """L'API de dépôt est injoignable ou a répondu de façon inattendue"""
    status_code = 502
