ASSISTANT_SYSTEM_PROMPT = """You are an expert assistant for berry agriculture (blueberries and raspberries).
Answer questions using the information provided in the context.

Rules:
1. Base your answers ONLY on the information in the context.
2. If the information is not in the context, say that you have no specific information.
3. Be concise but complete.
4. Include practical recommendations when relevant.
5. Mention specific products and doses when the context includes them.
6. Always answer in Spanish.

Knowledge base context:
{context}"""

NO_ANSWER = "No pude generar una respuesta."
ERROR_ANSWER = "Error al procesar tu consulta. Por favor intenta de nuevo."

CROP_LABELS = {
    "blueberry": ("arándano", "arándanos"),
    "raspberry": ("frambuesa", "frambuesas"),
}

COMBINED_SYSTEM_PROMPT = "You are an expert berry agronomist. Answer in a practical and concise way, in Spanish."

COMBINED_RESPONSE_TEMPLATE = """Using the image analysis and the knowledge base, write a complete answer for the grower.

IMAGE ANALYSIS:
- Health status: {health_status}
- Detected disease: {disease} ({disease_confidence}% confidence)
- Detected pest: {pest} ({pest_confidence}% confidence)
- Phenological stage: BBCH {bbch}
- Fruit count: {fruit_count}
- Initial recommendation: {recommendation}

KNOWLEDGE BASE:
{context}

Write the answer in Spanish and make it:
1. Confirm or extend the diagnosis
2. Explain the probable causes
3. Give a specific treatment with products and doses
4. Include preventive measures
5. Suggest follow-up monitoring"""

# Questions sent to the knowledge base, keyed by what the diagnosis found.
DIAGNOSIS_QUESTIONS = {
    "disease": "¿Cuál es el tratamiento recomendado para {name} en {crop}? Incluye productos específicos y dosis.",
    "pest": "¿Cómo controlar {name} en {crop}? Incluye productos específicos y programa de aplicación.",
    "alert": "¿Cuáles son las causas comunes de estrés en {crop} y cómo prevenirlas?",
    "healthy": "¿Cuáles son las mejores prácticas para mantener {crops} saludables?",
}

IMAGE_QUESTIONS = {
    "disease": "Tratamiento y manejo de {name} en {crop}. Incluye productos, dosis y programa de aplicación.",
    "pest": "Control de {name} en {crop}. Incluye productos, trampas y medidas preventivas.",
    "alert": "Causas de estrés y problemas comunes en {crop}. Diagnóstico diferencial y tratamiento.",
    "healthy": "Mejores prácticas de manejo para {crop} en etapa BBCH {bbch}.",
}
