"""
Executor de passos nomeados para fluxos com efeitos colaterais em sequência.

Um passo crítico que falha interrompe o fluxo (StepFailed); um passo
best-effort que falha é registrado e o fluxo continua. Um passo pode
retornar SKIP quando as suas pré-condições não existem.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

SKIP = object()


class StepFailed(Exception):
    def __init__(self, step, cause):
        super().__init__(f"Passo '{step}' falhou: {cause}")
        self.step = step
        self.cause = cause


@dataclass
class Step:
    name: str
    action: Callable
    critical: bool = True
    when: Callable | None = None


@dataclass
class StepReport:
    completed: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)

    def ok(self, name):
        return name in self.completed


class StepRunner:

    def __init__(self, label, log=None):
        self.label = label
        self.log = log or logger
        self.steps = []

    def add(self, name, action, critical=True, when=None):
        self.steps.append(Step(name, action, critical, when))
        return self

    def run(self, context):
        report = StepReport()
        for step in self.steps:
            if step.when is not None and not step.when(context):
                report.skipped.append(step.name)
                continue
            try:
                result = step.action(context)
            except Exception as e:
                if step.critical:
                    self.log.error(f"[{self.label}] Passo '{step.name}' falhou: {e}")
                    raise StepFailed(step.name, e) from e
                self.log.warning(f"[{self.label}] Passo '{step.name}' falhou (continuando): {e}")
                report.failed[step.name] = e
                continue

            if result is SKIP:
                report.skipped.append(step.name)
            else:
                report.completed.append(step.name)
        return report
