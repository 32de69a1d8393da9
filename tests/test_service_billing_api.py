from models import db, Service, ServiceItem


def add_service(app, name, price):
    with app.app_context():
        s = Service(name=name, price=price)
        db.session.add(s)
        db.session.commit()
        return s.id


def test_create_and_print_service_bill(auth_client, shop):
    resp = auth_client.post("/service-billing/create", json={
        "client_id": shop["client_id"],
        "items": [{"service_id": shop["service_id"], "quantity": 2}],
        "discount": "200",
        "transport": "300",
        "advance": "1000",
    })

    assert resp.status_code == 201
    bill = resp.get_json()["bill"]
    assert bill["total"] == 5000
    assert bill["transport"] == 300
    assert bill["advance"] == 1000
    assert bill["items"][0]["service"]["name"] == "House Wiring"

    html = auth_client.get(f"/service-billing/invoice/{bill['id']}").get_data(as_text=True)
    assert "House Wiring" in html
    # 5000 + 300 - 1000 - 200
    assert "Rs. 4,100.00" in html
    assert html.count('class="col-sn"') == 14

    pdf = auth_client.get(f"/service-billing/invoice/{bill['id']}/pdf")
    assert pdf.data.startswith(b"%PDF")


def test_edit_replaces_items(app, auth_client, shop):
    repair_id = add_service(app, "Fan Repair", 800)
    bill_id = auth_client.post("/service-billing/create", json={
        "client_id": shop["client_id"],
        "items": [{"service_id": shop["service_id"], "quantity": 1}],
    }).get_json()["bill"]["id"]

    resp = auth_client.put(f"/service-billing/bills/{bill_id}", json={
        "items": [{"service_id": repair_id, "quantity": 3}],
        "discount": "100",
    })

    assert resp.status_code == 200
    bill = resp.get_json()["bill"]
    assert bill["client"]["name"] == "Asad"
    assert bill["total"] == 2400
    assert bill["payable"] == 2300
    assert [(i["service"]["name"], i["quantity"]) for i in bill["items"]] == [("Fan Repair", 3)]
    with app.app_context():
        assert ServiceItem.query.count() == 1


def test_service_bill_validation(auth_client, shop):
    resp = auth_client.post("/service-billing/create", json={"client_id": shop["client_id"]})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Please add at least one service"

    resp = auth_client.post("/service-billing/create", json={
        "client_id": shop["client_id"],
        "items": [{"service_id": shop["service_id"], "quantity": 1}],
        "transport": "-5",
    })
    assert resp.get_json()["error"] == "Invalid transport charge"


def test_service_bill_history(auth_client, shop):
    auth_client.post("/service-billing/create", json={
        "client_id": shop["client_id"],
        "items": [{"service_id": shop["service_id"], "quantity": 1}],
        "transport": 150,
    })

    rows = auth_client.get("/service-billing/bills?q=Asad").get_json()["bills"]
    assert len(rows) == 1
    assert rows[0]["transport"] == 150
    assert auth_client.get("/service-billing/bills/999").status_code == 404
