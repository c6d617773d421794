COMPLAINT = {
    "name": "Ravi",
    "email": "ravi@example.com",
    "message": "Parcel arrived damaged",
    "userType": "customer",
}


def test_post_complaint(client, db, mail):
    resp = client.post("/complaints/post-complaints", json=COMPLAINT)
    assert resp.status_code == 201
    complaint = resp.json()["complaint"]
    assert complaint["status"] == "Pending"
    assert len(complaint["complaintNumber"]) == 6

    assert mail.sent[-1]["to"] == "ravi@example.com"
    assert complaint["complaintNumber"] in mail.sent[-1]["text"]
    assert db["complaint"].count_documents({}) == 1


def test_post_complaint_missing_field(client, db):
    resp = client.post("/complaints/post-complaints", json={**COMPLAINT, "userType": ""})
    assert resp.status_code == 400
    resp = client.post("/complaints/post-complaints", json={k: v for k, v in COMPLAINT.items() if k != "message"})
    assert resp.status_code == 400
    assert db["complaint"].count_documents({}) == 0


def test_post_complaint_email_failure_is_an_error(client, db, mail):
    mail.failing.add("ravi@example.com")
    resp = client.post("/complaints/post-complaints", json=COMPLAINT)
    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("Error registering complaint")


def test_list_complaints(client):
    client.post("/complaints/post-complaints", json=COMPLAINT)
    client.post("/complaints/post-complaints", json={**COMPLAINT, "email": "meena@example.com"})
    resp = client.get("/complaints/get-complaints")
    assert resp.status_code == 200
    assert {c["email"] for c in resp.json()["complaints"]} == {"ravi@example.com", "meena@example.com"}


def test_update_status(client):
    number = client.post("/complaints/post-complaints", json=COMPLAINT).json()["complaint"]["complaintNumber"]

    resp = client.put("/complaints/update-complaint-status", json={"complaintId": number, "status": "In Progress"})
    assert resp.status_code == 200
    assert resp.json()["complaint"]["status"] == "In Progress"

    missing = client.put("/complaints/update-complaint-status", json={"complaintId": "000000", "status": "Resolved"})
    assert missing.status_code == 404
    invalid = client.put("/complaints/update-complaint-status", json={"complaintId": number, "status": "Closed"})
    assert invalid.status_code == 400
