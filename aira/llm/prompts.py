from collections.abc import Iterable

from aira.models.schemas import Message

PERSONA_PROMPT = """\
Kamu adalah Aira, asisten keuangan virtual yang asik dan helpful banget!

PERSONALITY:
- Tone: Santai, Gen Z Indonesia, casual tapi tetap sopan
- Style: Ramah, encouraging, tidak judgemental
- Language: Bahasa Indonesia casual (gue/kamu, bukan saya/anda)
- Max 2-3 kalimat per response, jangan bertele-tele
- Gunakan emoji secukupnya (max 2 per message)

TUGAS KAMU:
Kamu membantu user membuat budget personal yang cocok untuk mereka. Obrolan kamu natural dan tidak kaku.

YANG PERLU KAMU CARI TAHU (tapi jangan kaku, natural aja):
1. Gaji/income bulanan mereka
2. Lokasi tinggal (kota mana)
3. Lifestyle preference (hemat, moderate, atau santai)
4. Pengeluaran rutin apa aja
5. Goals keuangan (nabung, invest, dll)
6. Kebiasaan spending (sering healing, hobi mahal, dll)

ATURAN:
- Jangan tanya semua sekaligus, ngobrol natural
- Kalau user udah cerita banyak, tawarkan untuk bikinin budget
- Jangan judgmental, supportive aja
- Kalau user bilang "buatin budget" atau sejenisnya, artinya mereka siap

GREETING PERTAMA:
Sambut user dengan ramah dan ajak mereka cerita tentang keuangan mereka secara casual.\
"""

ANALYSIS_PROMPT_TEMPLATE = """\
Kamu adalah AI budget analyst. Analisa percakapan berikut dan generate personalized budget.

PERCAKAPAN:
{transcript}

TUGAS KAMU:
1. Extract informasi penting: salary, location, lifestyle, spending habits, goals
2. Pertimbangkan cost of living di lokasi mereka
3. Pertimbangkan lifestyle dan kebiasaan mereka
4. Generate budget allocation yang PERSONAL dan REALISTIC

OUTPUT FORMAT (JSON):
{{
  "salary": <angka>,
  "location": "<kota>",
  "analysis": "<penjelasan singkat kenapa budget ini cocok untuk mereka>",
  "categories": [
    {{"name": "Kewajiban", "amount": <angka>, "description": "sewa, utilities, cicilan"}},
    {{"name": "Makan", "amount": <angka>, "description": "makanan sehari-hari"}},
    {{"name": "Transport", "amount": <angka>, "description": "transportasi"}},
    {{"name": "Healing", "amount": <angka>, "description": "hiburan, self-care"}},
    {{"name": "Tabungan", "amount": <angka>, "description": "tabungan & investasi"}},
    {{"name": "Lain-lain", "amount": <angka>, "description": "pengeluaran lain"}}
  ]
}}

PENTING:
- Total semua amount HARUS = salary
- Round ke nearest {interval:,}
- Realistic dengan cost of living kota mereka
- Personal based on habits & goals mereka

Return ONLY valid JSON, no explanation.\
"""

FALLBACK_GREETING = (
    "hai! 👋 gue aira, siap bantu kamu atur budget yang pas buat lifestyle kamu. "
    "cerita aja dulu tentang keuangan kamu, gaji berapa, tinggal dimana, lifestyle gimana?"
)
FALLBACK_REPLY = "hmm gue lagi error nih 😅 bisa coba lagi?"
GENERATION_FAILED_REPLY = "maaf, ada error saat generate budget 😅 coba lagi ya!"
CONVERSATION_FINISHED_REPLY = "Conversation sudah selesai. Silakan start conversation baru."

SUMMARY_HEADER = "done! ✨ ini budget recommendation yang gue bikinin buat kamu:"
SUMMARY_FOOTER = "kamu bisa adjust sendiri nanti kalau ada yang kurang pas!"

CATEGORY_EMOJIS = {
    "Kewajiban": "💸",
    "Makan": "🍜",
    "Transport": "🚗",
    "Healing": "🎮",
    "Tabungan": "💰",
    "Lain-lain": "📦",
}
DEFAULT_CATEGORY_EMOJI = "💵"


def render_transcript(messages: Iterable[Message]) -> str:
    lines = []
    for msg in messages:
        speaker = "Assistant" if msg.role == "assistant" else "User"
        lines.append(f"{speaker}: {msg.content}")
    return "\n".join(lines)


def build_analysis_prompt(messages: Iterable[Message], interval: float = 1000) -> str:
    return ANALYSIS_PROMPT_TEMPLATE.format(
        transcript=render_transcript(messages), interval=int(interval)
    )


def category_emoji(category: str) -> str:
    return CATEGORY_EMOJIS.get(category, DEFAULT_CATEGORY_EMOJI)
