from fastapi import Request

from indexcheck.services.credentials import CredentialStore
from indexcheck.workers.queue import JobQueue


def get_queue(request: Request) -> JobQueue:
    return request.app.state.queue


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials
