"""Requester client for the loan server."""

from bookloan.client.requester import Requester
