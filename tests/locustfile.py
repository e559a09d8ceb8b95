import os
import uuid

from locust import HttpUser, task, between


class ChatbotPerformanceTest(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        uid = os.getenv("LOCUST_UID", f"load-{uuid.uuid4().hex[:8]}")
        response = self.client.post(
            "/api/auth/verify",
            json={"user": {"uid": uid, "email": f"{uid}@example.com", "displayName": uid}},
        )
        self.headers = {"Authorization": f"Bearer {response.json()['token']}"}
        self.session_id = uuid.uuid4().hex

    @task(3)
    def test_chat(self):
        self.client.post(
            "/api/chatbot",
            json={"queries": "Summarize the benefits of unit testing", "sessionId": self.session_id},
            headers=self.headers,
        )

    @task
    def test_history(self):
        self.client.get(f"/api/chatbot/history/{self.session_id}", headers=self.headers, name="/api/chatbot/history/[id]")

    @task
    def test_sessions(self):
        self.client.get("/api/chatbot/sessions", headers=self.headers)
