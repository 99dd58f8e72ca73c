"""\
Оркестратор workflow FLISR.

Один проход без повторов:

    LOAD_CONTEXT -> COMPUTE_DISTANCE -> LOAD_TOPOLOGY -> PLAN -> PERSIST -> DONE

Из любого этапа возможен переход в FAILED: ошибка логируется вместе с этапом
и пробрасывается вызывающей стороне без изменений. Исключение: PERSIST,
всё, что не является TransactionError, оборачивается в неё (с исходной
причиной в __cause__).

Хранилище и канал команд передаются в конструктор, сервис не хранит
состояния между вызовами и может работать в нескольких процессах.
"""

from loguru import logger

from flisr import calculations, planner
from flisr.commands import CommandChannel
from flisr.errors import TransactionError
from flisr.store import FlisrStore
from flisr.types import FlisrOutcome, WorkflowStage


class FlisrService:
    def __init__(self, store: FlisrStore, commands: CommandChannel):
        self.store = store
        self.commands = commands

    def run(self, fault_event_id: int) -> FlisrOutcome:
        logger.info(f"⚡ FLISR workflow started for fault event {fault_event_id}")
        stage = WorkflowStage.LOAD_CONTEXT
        try:
            self._enter(stage, fault_event_id)
            context = self.store.get_fault_context(fault_event_id)

            stage = WorkflowStage.COMPUTE_DISTANCE
            self._enter(stage, fault_event_id)
            distance = calculations.estimate(
                context.length_km,
                context.inductance_h_per_km,
                context.capacitance_f_per_km,
                context.timestamp_a,
                context.timestamp_b,
            )
            logger.debug(
                f"📏 Fault on {context.connection_id}: "
                f"{distance.distance_from_source_m:.2f} m from source, "
                f"v={distance.propagation_speed_m_s:.0f} m/s, Δt={distance.time_delta_s:.9f} s, "
                f"clamped={distance.clamped}, confidence={distance.confidence}"
            )

            stage = WorkflowStage.LOAD_TOPOLOGY
            self._enter(stage, fault_event_id)
            topology = self.store.get_topology()

            stage = WorkflowStage.PLAN
            self._enter(stage, fault_event_id)
            plan = planner.plan(context, topology.zones, topology.connections)
            for line in plan.rationale:
                logger.debug(f"🧭 {line}")

            stage = WorkflowStage.PERSIST
            self._enter(stage, fault_event_id)
            self._persist(context, plan, distance, topology.versions())
        except Exception as exc:
            logger.error(
                f"❌ FLISR workflow for fault event {fault_event_id} "
                f"failed at {stage.value}: {type(exc).__name__}: {exc}"
            )
            self._enter(WorkflowStage.FAILED, fault_event_id)
            raise

        self._enter(WorkflowStage.DONE, fault_event_id)
        logger.info(
            f"✅ FLISR workflow finished for fault event {fault_event_id}: "
            f"{', '.join(action.action.value for action in plan.actions)}"
        )
        return FlisrOutcome(fault_context=context, distance=distance, plan=plan)

    def _persist(self, context, plan, distance, expected_versions) -> None:
        try:
            self.store.apply_restoration(
                context, plan, distance, self.commands, expected_versions=expected_versions
            )
        except TransactionError:
            raise
        except Exception as exc:
            raise TransactionError(
                f"Failed to apply restoration for fault event {context.event_id}: {exc}"
            ) from exc

    @staticmethod
    def _enter(stage: WorkflowStage, fault_event_id: int) -> None:
        logger.debug(f"🔁 FLISR[{fault_event_id}] -> {stage.value}")
