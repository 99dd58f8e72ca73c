"""Исключения ядра FLISR.

Ни одно из них не повторяется автоматически: повтор (если нужен) остаётся на
ответственности вызывающей стороны, и безопасен он только пока событие
повреждения остаётся неразрешённым.
"""


class FlisrError(Exception):
    """Базовое исключение workflow FLISR."""


class InvalidParameterError(FlisrError, ValueError):
    """Неположительные или нечисловые физические параметры, некорректные метки времени."""


class PrecisionError(FlisrError, ArithmeticError):
    """Разность меток времени не представима точно в float64."""


class NotFoundError(FlisrError, LookupError):
    """Событие повреждения отсутствует, уже разрешено или не имеет осциллограммы/связи."""


class TransactionError(FlisrError):
    """Сбой на этапе фиксации результата (запись в БД или отправка команды)."""


class TopologyChangedError(TransactionError):
    """Связь изменилась между чтением топологии и фиксацией плана."""


class CommandDispatchError(FlisrError):
    """Публикация команды не была принята клиентом MQTT."""
