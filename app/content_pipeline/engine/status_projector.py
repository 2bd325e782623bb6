"""
Status Projector - Formata o status público de um job (polling).

Função pura: o mesmo snapshot sempre gera a mesma resposta. O status por
step é derivado de current_step, nunca gravado:

- completed:  índice antes de current_step, ou job completed
- processing: é o current_step de um job rodando
- error:      é o step que causou a falha de um job failed
- pending:    todo o resto
"""

from typing import Dict, List

from .models import Job, JobStatus

STEP_COMPLETED = "completed"
STEP_PROCESSING = "processing"
STEP_ERROR = "error"
STEP_PENDING = "pending"


def project_steps(job: Job) -> List[Dict]:
    current_index = (
        job.steps.index(job.current_step)
        if job.current_step in job.steps else None
    )

    steps = []
    for index, name in enumerate(job.steps):
        if job.status == JobStatus.COMPLETED:
            status = STEP_COMPLETED
        elif current_index is None:
            status = STEP_PENDING
        elif index < current_index:
            status = STEP_COMPLETED
        elif index == current_index:
            status = STEP_ERROR if job.status == JobStatus.FAILED else STEP_PROCESSING
        else:
            status = STEP_PENDING
        steps.append({'id': name, 'status': status})
    return steps


def project(job: Job) -> Dict:
    """Job → StatusView (JSON do endpoint de status)."""
    view = {
        'processingId': job.id,
        'jobType': job.job_type,
        'status': job.status.value,
        'progress': job.progress,
        'currentStep': job.current_step,
        'steps': project_steps(job),
        'createdAt': job.created_at,
        'updatedAt': job.updated_at,
    }
    if job.status == JobStatus.COMPLETED:
        view['result'] = dict(job.result or {})
    if job.status == JobStatus.FAILED:
        view['errorMessage'] = job.error_message
    return view
