def test_defaults_created_on_first_read(client, db):
    data = client.get("/api/contact-settings").json()["data"]
    assert data["phone"] == "+30 228 601 2345"
    assert data["location"]["city"] == "Santorini"
    assert data["serviceHours"]["frontDesk"] == "24/7"
    client.get("/api/contact-settings")
    assert db["contactsettings"].count_documents({}) == 1


def test_admin_update_merges_nested_fields(client, admin_headers, staff_headers):
    body = {"email": "desk@hotel.com", "location": {"city": "Oia"}, "serviceHours": {"spa": "10am - 6pm"}}
    assert client.put("/api/contact-settings", json=body, headers=staff_headers).status_code == 403

    data = client.put("/api/contact-settings", json=body, headers=admin_headers).json()["data"]
    assert data["email"] == "desk@hotel.com"
    assert data["location"]["city"] == "Oia"
    assert data["location"]["country"] == "Greece"
    assert data["serviceHours"]["spa"] == "10am - 6pm"
    assert data["serviceHours"]["restaurant"] == "7am - 10pm"
