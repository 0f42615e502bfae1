from langchain_core.prompts import ChatPromptTemplate


# Prompt for answering based only on the retrieved chunks of the current file
context_qa_prompt = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            (
                "You are a helpful AI assistant powered by Groq that answers questions "
                "based on the provided context from files.\n"
                "Use ONLY the context below. If the context doesn't contain enough "
                "information to answer the question, say so clearly.\n"
                "Be concise but thorough in your response.\n\n"
                "Context:\n{context}"
            ),
        ),
        ("human", "Question: {input}"),
    ]
)


# Central dictionary to register prompts
PROMPT_REGISTRY = {
    "context_qa": context_qa_prompt,
}
