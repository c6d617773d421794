import smtplib

import mongomock
import pytest
from fastapi.testclient import TestClient

from mailer import Mailer
from main import create_app
from schemas import Product
from throttling import limiter


class RecordingMailer(Mailer):
    def __init__(self):
        super().__init__(host="smtp.test", port=25, username=None, password=None, sender="shop@example.com")
        self.sent = []
        self.failing = set()

    def send(self, to, subject, text, html=None):
        if to in self.failing:
            raise smtplib.SMTPRecipientsRefused({to: (550, b"mailbox unavailable")})
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})

    def subjects(self):
        return [m["subject"] for m in self.sent]


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def mail():
    return RecordingMailer()


@pytest.fixture
def client(db, mail):
    limiter.reset()
    with TestClient(create_app(db=db, mailer=mail)) as c:
        yield c


@pytest.fixture
def register(client):
    def _register(email="u1@example.com", password="secret-pass", name="User One", phone="9876543210"):
        resp = client.post("/auth/signup", json={"name": name, "email": email, "password": password, "phone": phone})
        assert resp.status_code == 201, resp.text
        return resp.json()["userId"]
    return _register


@pytest.fixture
def add_product(db):
    def _add(product_id, in_stock=10, price=100.0):
        db["product"].insert_one(Product(
            productId=product_id,
            name=f"Product {product_id}",
            price=price,
            img="https://example.com/p.png",
            category="Gifts",
            inStockValue=in_stock,
        ).model_dump())
    return _add
