"""Unit tests for the conversation endpoints."""

from data_agent.models.pipeline import ConversationTurn


class TestConversationEndpoints:
    def test_get_conversation(self, client, mock_pipeline):
        mock_pipeline.conversations.append(
            "conv-1",
            ConversationTurn(question="What album was released in 2016?", sql="SELECT ttle FROM albm WHERE col1 = 2016"),
        )

        response = client.get("/api/conversations/conv-1")

        assert response.status_code == 200
        data = response.json()
        assert data["conversationId"] == "conv-1"
        assert data["turns"][0]["question"] == "What album was released in 2016?"
        assert data["turns"][0]["sql"] == "SELECT ttle FROM albm WHERE col1 = 2016"

    def test_unknown_conversation(self, client):
        response = client.get("/api/conversations/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found: missing"}

    def test_delete_conversation(self, client, mock_pipeline):
        mock_pipeline.conversations.append("conv-1", ConversationTurn(question="q"))

        response = client.delete("/api/conversations/conv-1")

        assert response.status_code == 204
        assert "conv-1" not in mock_pipeline.conversations
        assert client.delete("/api/conversations/conv-1").status_code == 404
