"""
Unit tests for classify_failure: pure mapping from status/detail to FailureType.
"""
import unittest

from visionlab.services.image_generation.base import (
    CredentialRequiredError,
    ExhaustedFallbackError,
    RouteNotImplementedError,
    UpstreamError,
)
from visionlab.services.image_generation.failure_types import FailureType, classify_failure


class TestClassifyFailure(unittest.TestCase):
    def test_route_missing_statuses(self):
        self.assertEqual(classify_failure(404, {}), FailureType.ROUTE_NOT_IMPLEMENTED)
        self.assertEqual(classify_failure(405, {}), FailureType.ROUTE_NOT_IMPLEMENTED)

    def test_other_client_and_server_errors(self):
        self.assertEqual(classify_failure(400, {}), FailureType.UPSTREAM_ERROR)
        self.assertEqual(classify_failure(429, {}), FailureType.UPSTREAM_ERROR)
        self.assertEqual(classify_failure(503, {}), FailureType.UPSTREAM_ERROR)

    def test_success_without_image(self):
        self.assertEqual(classify_failure(200, {}), FailureType.NO_IMAGE_IN_RESPONSE)

    def test_success_with_error_envelope(self):
        detail = {"error_message": "model overloaded"}
        self.assertEqual(classify_failure(200, detail), FailureType.UPSTREAM_ERROR)

    def test_block_reason(self):
        self.assertEqual(classify_failure(200, {"block_reason": "SAFETY"}), FailureType.UPSTREAM_ERROR)

    def test_no_status_is_transport(self):
        self.assertEqual(classify_failure(None, {}), FailureType.TRANSPORT_ERROR)

    def test_managed_entity_not_found_requires_credential(self):
        detail = {"error_message": "Requested entity was not found."}
        self.assertEqual(classify_failure(404, detail, managed=True), FailureType.CREDENTIAL_REQUIRED)

    def test_managed_forbidden_requires_credential(self):
        self.assertEqual(classify_failure(403, {}, managed=True), FailureType.CREDENTIAL_REQUIRED)

    def test_managed_plain_404_is_upstream(self):
        self.assertEqual(classify_failure(404, {}, managed=True), FailureType.UPSTREAM_ERROR)

    def test_custom_path_never_requires_credential(self):
        self.assertEqual(classify_failure(403, {}), FailureType.UPSTREAM_ERROR)


class TestErrorTypes(unittest.TestCase):
    def test_failure_type_recorded_in_detail(self):
        self.assertEqual(CredentialRequiredError("x").detail["failure_type"], "credential_required")
        self.assertEqual(ExhaustedFallbackError("x").detail["failure_type"], "exhausted_fallback")
        self.assertEqual(RouteNotImplementedError("x").detail["failure_type"], "route_not_implemented")

    def test_explicit_failure_type_kept(self):
        err = UpstreamError("timeout", detail={"failure_type": FailureType.TRANSPORT_ERROR.value})
        self.assertEqual(err.detail["failure_type"], "transport_error")
        self.assertEqual(err.failure_type, FailureType.UPSTREAM_ERROR)
