"""Tests for document upload, download, list and delete."""
import io

import pytest
from httpx import AsyncClient

from resolve.config import settings
from tests.conftest import ADMIN_HEADERS, AUTH_HEADERS, AUTH_HEADERS_USER2, USER_TOKEN


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PDF_BYTES = b"%PDF-1.4\n1 0 obj<</Type/Catalog>>endobj\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


async def _create_case(client: AsyncClient, headers=None) -> int:
    resp = await client.post(
        "/api/cases",
        json={
            "title": "Retention not released",
            "issue_type": "payment_dispute",
            "description": "Head contractor is holding retention past completion.",
        },
        headers=headers or AUTH_HEADERS,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


async def _upload(client: AsyncClient, name="invoice.pdf", data=PDF_BYTES, mime="application/pdf",
                  headers=None, **form):
    return await client.post(
        "/api/documents/upload",
        headers=headers or AUTH_HEADERS,
        files={"file": (name, io.BytesIO(data), mime)},
        data={k: str(v) for k, v in form.items()},
    )


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_requires_auth(client: AsyncClient, store):
    resp = await client.post(
        "/api/documents/upload",
        files={"file": ("invoice.pdf", io.BytesIO(PDF_BYTES), "application/pdf")},
    )
    assert resp.status_code == 401
    assert store.calls == []


@pytest.mark.asyncio
async def test_upload_pdf(client: AsyncClient, store):
    resp = await _upload(client)
    assert resp.status_code == 201
    data = resp.json()
    assert data["user_id"] == "user-1"
    assert data["original_name"] == "invoice.pdf"
    assert data["file_type"] == "document"
    assert data["category"] == "evidence"
    assert data["file_size"] == len(PDF_BYTES)
    assert data["previewable"] is True
    assert data["storage_path"].startswith("users/user-1/general/evidence/")
    assert data["storage_path"].endswith(".pdf")
    assert store.objects[data["storage_path"]][0] == PDF_BYTES


@pytest.mark.asyncio
async def test_upload_image_defaults_to_photos(client: AsyncClient):
    resp = await _upload(client, name="site.png", data=PNG_BYTES, mime="image/png")
    assert resp.status_code == 201
    assert resp.json()["file_type"] == "photo"
    assert resp.json()["category"] == "photos"


@pytest.mark.asyncio
async def test_upload_disallowed_mime_type(client: AsyncClient, store):
    resp = await _upload(client, name="tool.exe", data=b"MZ", mime="application/x-msdownload")
    assert resp.status_code == 400
    assert "not allowed" in resp.json()["detail"]
    assert store.calls == []


@pytest.mark.asyncio
async def test_upload_oversize_rejected_before_storage(client: AsyncClient, store, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 1024)
    resp = await _upload(client, data=b"x" * 4096, name="big.txt", mime="text/plain")
    assert resp.status_code == 413
    assert store.calls == []


@pytest.mark.asyncio
async def test_upload_to_case_records_timeline(client: AsyncClient):
    case_id = await _create_case(client)
    resp = await client.post(
        f"/api/cases/{case_id}/upload",
        headers=AUTH_HEADERS,
        files={"file": ("claim.pdf", io.BytesIO(PDF_BYTES), "application/pdf")},
        data={"category": "correspondence"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["case_id"] == case_id
    assert data["storage_path"].startswith(f"users/user-1/cases/{case_id}/correspondence/")

    timeline = await client.get(f"/api/cases/{case_id}/timeline", headers=AUTH_HEADERS)
    event_types = [e["event_type"] for e in timeline.json()]
    assert "document_uploaded" in event_types


@pytest.mark.asyncio
async def test_upload_to_other_users_case_forbidden(client: AsyncClient, store):
    case_id = await _create_case(client)
    resp = await _upload(client, headers=AUTH_HEADERS_USER2, case_id=case_id)
    assert resp.status_code == 403
    assert store.calls == []


@pytest.mark.asyncio
async def test_upload_to_missing_case_returns_404(client: AsyncClient):
    resp = await _upload(client, case_id=424242)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_upload_to_user_case_stays_with_owner(client: AsyncClient):
    case_id = await _create_case(client)
    resp = await _upload(client, headers=ADMIN_HEADERS, case_id=case_id)
    assert resp.status_code == 201
    assert resp.json()["user_id"] == "user-1"


# ---------------------------------------------------------------------------
# Read / list
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_documents_newest_first(client: AsyncClient):
    first = (await _upload(client, name="a.pdf")).json()["id"]
    second = (await _upload(client, name="b.pdf")).json()["id"]

    resp = await client.get("/api/documents", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert [d["id"] for d in resp.json()] == [second, first]


@pytest.mark.asyncio
async def test_list_documents_filters_by_category(client: AsyncClient):
    await _upload(client, name="a.pdf", category="contract")
    await _upload(client, name="b.pdf")

    resp = await client.get("/api/documents", params={"category": "contract"}, headers=AUTH_HEADERS)
    assert [d["original_name"] for d in resp.json()] == ["a.pdf"]


@pytest.mark.asyncio
async def test_list_documents_is_per_owner(client: AsyncClient):
    await _upload(client)
    resp = await client.get("/api/documents", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_list_documents_answers_without_redirect(client: AsyncClient):
    resp = await client.get("/api/documents", headers=AUTH_HEADERS, follow_redirects=False)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_uploaded_metadata_matches_list_and_detail(client: AsyncClient):
    uploaded = (await _upload(client, name="variation.pdf", category="contract")).json()

    listed = (await client.get("/api/documents", headers=AUTH_HEADERS)).json()
    detail = (await client.get(f"/api/documents/{uploaded['id']}", headers=AUTH_HEADERS)).json()
    [entry] = [d for d in listed if d["id"] == uploaded["id"]]

    for field in ("original_name", "file_size", "mime_type", "category", "kind"):
        assert entry[field] == detail[field] == uploaded[field], field
    assert detail["original_name"] == "variation.pdf"
    assert detail["file_size"] == len(PDF_BYTES)
    assert detail["mime_type"] == "application/pdf"
    assert detail["category"] == "contract"


@pytest.mark.asyncio
async def test_document_kind_comes_from_extension(client: AsyncClient):
    pdf = (await _upload(client, name="invoice.pdf")).json()
    odd = (await _upload(client, name="notes.zzz", data=b"hello", mime="text/plain")).json()
    assert pdf["kind"] == "pdf"
    assert odd["kind"] == "unknown"


@pytest.mark.asyncio
async def test_get_document_other_user_forbidden(client: AsyncClient):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_get_nonexistent_document(client: AsyncClient):
    resp = await client.get("/api/documents/999999", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_case_documents_endpoint(client: AsyncClient):
    case_id = await _create_case(client)
    await _upload(client, case_id=case_id)
    await _upload(client)

    resp = await client.get(f"/api/cases/{case_id}/documents", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert len(resp.json()) == 1
    assert resp.json()[0]["case_id"] == case_id


# ---------------------------------------------------------------------------
# Download / preview
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_download_is_attachment(client: AsyncClient):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.content == PDF_BYTES
    assert resp.headers["content-disposition"] == 'attachment; filename="invoice.pdf"'
    assert resp.headers["content-type"].startswith("application/pdf")


@pytest.mark.asyncio
async def test_preview_pdf_is_inline(client: AsyncClient):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download?preview=true", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-disposition"].startswith("inline;")


@pytest.mark.asyncio
async def test_preview_of_text_falls_back_to_attachment(client: AsyncClient):
    doc_id = (await _upload(client, name="notes.txt", data=b"hello", mime="text/plain")).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download?preview=true", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-disposition"].startswith("attachment;")


@pytest.mark.asyncio
async def test_download_with_query_token(client: AsyncClient):
    doc_id = (await _upload(client, name="site.png", data=PNG_BYTES, mime="image/png")).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download", params={"preview": "true", "token": USER_TOKEN})
    assert resp.status_code == 200
    assert resp.content == PNG_BYTES


@pytest.mark.asyncio
async def test_download_without_credentials(client: AsyncClient):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_download_other_user_forbidden(client: AsyncClient, store):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403
    assert not any(call[0] == "download" for call in store.calls)


@pytest.mark.asyncio
async def test_admin_can_download_any_document(client: AsyncClient):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.get(f"/api/documents/{doc_id}/download", headers=ADMIN_HEADERS)
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_document(client: AsyncClient, store):
    upload = (await _upload(client)).json()
    resp = await client.delete(f"/api/documents/{upload['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["storage_deleted"] is True
    assert upload["storage_path"] not in store.objects

    resp = await client.get(f"/api/documents/{upload['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_reports_storage_failure_but_removes_row(client: AsyncClient, store):
    doc_id = (await _upload(client)).json()["id"]
    store.fail_delete = True

    resp = await client.delete(f"/api/documents/{doc_id}", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["storage_deleted"] is False

    resp = await client.get(f"/api/documents/{doc_id}", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_other_user_forbidden(client: AsyncClient, store):
    doc_id = (await _upload(client)).json()["id"]
    resp = await client.delete(f"/api/documents/{doc_id}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403
    assert not any(call[0] == "delete" for call in store.calls)


@pytest.mark.asyncio
async def test_delete_nonexistent_document(client: AsyncClient):
    resp = await client.delete("/api/documents/999999", headers=AUTH_HEADERS)
    assert resp.status_code == 404
