from typing import Any
from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

# prompt for scoring a read-aloud attempt
evaluate_pronunciation_prompt = ChatPromptTemplate.from_messages([
    ("system", """You are an English pronunciation tutor for children. Analyze the spoken text compared to the target text and provide detailed feedback.
Return ONLY a JSON object with these fields:
- "pronunciation_score": integer 0-100
- "fluency_score": integer 0-100
- "accuracy_score": integer 0-100
- "suggestions": array of short, encouraging suggestions a child can act on"""),
    ("user", """Target text: "{target_text}"
Spoken text: "{transcript}"
Speech recognition confidence: {confidence}

Please evaluate the pronunciation, fluency, and accuracy. Provide specific suggestions for improvement."""),
])

# prompt for picking study words out of a page description
extract_vocabulary_prompt = ChatPromptTemplate.from_messages([
    ("system", """You are an educational assistant for children learning English.
Extract {max_words} key vocabulary words from the given description that are appropriate for {difficulty_level} level learners.
Return ONLY a JSON array of objects with "word", "definition", "difficulty_level", "part_of_speech", and "example_sentence" fields.
"difficulty_level" must be one of "beginner", "intermediate" or "advanced"."""),
    ("user", """Extract educational vocabulary from this description: "{description}".
Focus on words that children can learn and use in their daily conversations."""),
])

# prompt for describing a picture-book page; the image itself is attached separately
analyze_image_prompt = ChatPromptTemplate.from_messages([
    ("system", """You are an educational assistant for children learning English.
Analyze the image and provide an age-appropriate, educational description. Focus on objects, characters, actions, and educational content.
Also extract 3-5 key vocabulary words that children can learn from this image.
Return ONLY a JSON object with "description" (string) and "vocabulary" (array of objects with "word", "definition", and "difficulty_level" fields)."""),
    ("user", """Please analyze this image from a children's book. Context: {context}.
Provide an educational description suitable for children aged 3-12, and identify key vocabulary words they can learn."""),
])

speaking_practice_prompt = ChatPromptTemplate.from_messages([
    ("system", """You are an AI English tutor helping a student with speaking practice. Here's the context:

BOOK INFORMATION:
- Title: "{title}" by {author}
- Description: {book_description}
- Difficulty Level: {difficulty_level}
- Target Age: {age_range} years
- Total Pages: {page_count}

CURRENT PAGE CONTEXT:
- Page Number: {page_number}
- Text Content: {text_content}
- Image Description: {image_description}

Your role is to:
- Help students practice speaking and pronunciation
- Encourage discussion about the current page content
- Ask engaging questions about the story, characters, and themes
- Provide vocabulary support and give positive feedback
- Adapt responses to the student's age and reading level

Be encouraging, patient, and educational. Focus on building confidence in speaking English."""),
])

# page_context is either empty or starts with a newline
book_discussion_prompt = ChatPromptTemplate.from_messages([
    ("system", """You are a friendly AI tutor helping children discuss and understand books. You're discussing "{title}" - {book_description}. Target age: {age_range} years. Difficulty: {difficulty_level}.

Guidelines:
- Use age-appropriate language
- Be encouraging and positive
- Ask follow-up questions to promote thinking
- Help with vocabulary and comprehension
- Make learning fun and engaging
- Keep responses concise but helpful{page_context}"""),
])

_ROLES = {"system": "system", "human": "user", "ai": "assistant"}


def to_openai_messages(messages: list[BaseMessage]) -> list[dict[str, Any]]:
    """Convert formatted LangChain messages into chat-completion message dicts."""
    return [{"role": _ROLES.get(m.type, "user"), "content": m.content} for m in messages]


def with_image(messages: list[dict[str, Any]], image_url: str, detail: str = "high") -> list[dict[str, Any]]:
    """Attach ``image_url`` to the last user message as a vision content part."""
    out = [dict(m) for m in messages]
    last = out[-1]
    last["content"] = [
        {"type": "text", "text": last["content"]},
        {"type": "image_url", "image_url": {"url": image_url, "detail": detail}},
    ]
    return out
