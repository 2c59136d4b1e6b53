"""
Tests for the ViaCEP lookup.
"""

import requests

import cep


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


def fake_get(payload, status=200, calls=None):
    def _get(url, timeout):
        if calls is not None:
            calls.append((url, timeout))
        return FakeResponse(payload, status)

    return _get


def test_found(monkeypatch):
    calls = []
    payload = {"cep": "01310-100", "logradouro": "Avenida Paulista", "bairro": "Bela Vista",
               "localidade": "São Paulo", "uf": "SP"}
    monkeypatch.setattr(cep.requests, "get", fake_get(payload, calls=calls))

    address = cep.lookup_cep("01310-100")

    assert address == cep.Address("Avenida Paulista", "Bela Vista", "São Paulo", "SP")
    assert calls == [("https://viacep.com.br/ws/01310100/json/", 5.0)]


def test_not_found(monkeypatch):
    monkeypatch.setattr(cep.requests, "get", fake_get({"erro": True}))
    assert cep.lookup_cep("99999999") is None


def test_incomplete_cep_skips_the_request(monkeypatch):
    calls = []
    monkeypatch.setattr(cep.requests, "get", fake_get({}, calls=calls))
    assert cep.lookup_cep("0131") is None
    assert calls == []


def test_network_failure_is_swallowed(monkeypatch):
    def boom(url, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(cep.requests, "get", boom)
    assert cep.lookup_cep("01310100") is None


def test_bad_status_and_bad_json(monkeypatch):
    monkeypatch.setattr(cep.requests, "get", fake_get({}, status=400))
    assert cep.lookup_cep("01310100") is None

    monkeypatch.setattr(cep.requests, "get", fake_get(ValueError("not json")))
    assert cep.lookup_cep("01310100") is None


def test_custom_base_url(monkeypatch):
    calls = []
    monkeypatch.setattr(cep.requests, "get", fake_get({"logradouro": "Rua X"}, calls=calls))
    address = cep.lookup_cep("01310100", base_url="http://localhost:9000/ws", timeout=1)
    assert calls == [("http://localhost:9000/ws/01310100/json/", 1)]
    assert address.rua == "Rua X"
    assert address.uf == ""
