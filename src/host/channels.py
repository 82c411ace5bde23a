"""Names of host request/response channels and push events."""

# Request/response
GET_CHATS = "get-chats"
GET_CHAT_MESSAGES = "get-chat-messages"
GET_CONNECTION_STATUS = "get-connection-status"
GET_ALL_HUMAN_INTERVENTIONS = "get-all-human-interventions"
GET_HUMAN_INTERVENTION_DETAILS = "get-human-intervention-details"
TOGGLE_HUMAN_INTERVENTION = "toggle-human-intervention"
GET_AI_MODE_STATUS = "get-ai-mode-status"
SET_AI_MODE = "set-ai-mode"
GET_ACTIVE_FOLLOW_UPS = "get-active-follow-ups"
GET_FOLLOW_UP_CHECK_INFO = "get-follow-up-check-info"
CHECK_FOLLOW_UP_NOW = "check-follow-up-now"
CANCEL_FOLLOW_UP = "cancel-follow-up"
SEND_FOLLOW_UP_NOW = "send-follow-up-now"
SEND_MESSAGE = "send-message"
CLEAR_CHAT_CONVERSATION = "clear-chat-conversation"
CANCEL_ALL_FOLLOW_UPS = "cancel-all-follow-ups"

REQUEST_CHANNELS = frozenset({
    GET_CHATS,
    GET_CHAT_MESSAGES,
    GET_CONNECTION_STATUS,
    GET_ALL_HUMAN_INTERVENTIONS,
    GET_HUMAN_INTERVENTION_DETAILS,
    TOGGLE_HUMAN_INTERVENTION,
    GET_AI_MODE_STATUS,
    SET_AI_MODE,
    GET_ACTIVE_FOLLOW_UPS,
    GET_FOLLOW_UP_CHECK_INFO,
    CHECK_FOLLOW_UP_NOW,
    CANCEL_FOLLOW_UP,
    SEND_FOLLOW_UP_NOW,
    SEND_MESSAGE,
    CLEAR_CHAT_CONVERSATION,
    CANCEL_ALL_FOLLOW_UPS,
})

# Push events
NEW_MESSAGE = "new-message"
STATUS_UPDATE = "status-update"
FOLLOW_UP_CHECK_RESULT = "follow-up-check-result"
